# helix_alm/main.py

from .cli import cli


def main():
    cli(prog_name="helix-alm")


if __name__ == "__main__":
    main()
