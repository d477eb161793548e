import subprocess

import pytest


@pytest.fixture()
def no_pod():
    # The walkthrough is expected to leave nothing behind; ensure it starts clean too.
    subprocess.run("kubectl delete pod blog --ignore-not-found --wait=true",
                   shell=True, check=True, timeout=60, capture_output=True)
    yield
    subprocess.run("kubectl delete pod blog --ignore-not-found --wait=false",
                   shell=True, check=True, timeout=60, capture_output=True)
