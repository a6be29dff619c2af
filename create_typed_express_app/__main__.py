"""Allow ``python -m create_typed_express_app <directory>``."""

from create_typed_express_app.pipeline import main

main()
