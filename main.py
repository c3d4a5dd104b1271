"""Simple entrypoint to run the flat lay shopping pipeline locally."""

import json
import sys

from shop_app.app import FlatLayShopApp


def main() -> None:
    if len(sys.argv) != 2:
        print("usage: python main.py <flat-lay-image-url>")
        raise SystemExit(2)
    app = FlatLayShopApp()
    print(json.dumps(app.shop_flat_lay(sys.argv[1]), indent=2))


if __name__ == "__main__":
    main()
