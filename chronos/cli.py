import logging
import os
import sys
from pathlib import Path

import fncli

from .core.errors import ChronosError


def main():
    logging.basicConfig(
        level=logging.DEBUG if os.environ.get("CHRONOS_DEBUG") else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    fncli.autodiscover(Path(__file__).parent, "chronos")

    user_args = sys.argv[1:] or ["ls"]
    argv = ["chronos", *user_args]
    try:
        code = fncli.dispatch(argv)
    except ChronosError as e:
        sys.stderr.write(f"{e}\n")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
