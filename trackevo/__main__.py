import sys

from .config import Config
from .viewer import run


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    config = Config.from_json(argv[0]) if argv else Config()
    run(config)


if __name__ == "__main__":
    main()
