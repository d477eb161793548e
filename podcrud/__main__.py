"""
CLI entry point, when used as a module: `python -m podcrud`.

Useful for debugging in the IDEs (use the start-mode "Module", module "podcrud").
"""
from podcrud import cli

if __name__ == '__main__':
    cli.main()
