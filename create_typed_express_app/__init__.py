"""create-typed-express-app -- scaffold a TypeScript + Express server project.

Quick usage::

    from create_typed_express_app import Config, Pipeline

    config = Config(directory=Path("my-app"), skip_prompts=True)
    exit_code = await Pipeline(config).run()
"""

__version__ = "1.2.0"

from create_typed_express_app.config import CompilerSeverity, Config
from create_typed_express_app.pipeline import Pipeline, PipelineError, Stage

__all__ = [
    "CompilerSeverity",
    "Config",
    "Pipeline",
    "PipelineError",
    "Stage",
    "__version__",
]
