"""Allow ``python -m tsgrammars``."""

from tsgrammars.main import run

if __name__ == "__main__":
    run()
