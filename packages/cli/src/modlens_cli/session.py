"""Per-invocation access to the pipeline.

Built lazily so commands that never touch the store (init) do not create
a database file. Tests pre-seed ``ctx.obj["pipeline"]``.
"""

from __future__ import annotations

import click

from modlens_core.pipeline import Pipeline


def get_pipeline(ctx: click.Context, scheduler_backend: str | None = None) -> Pipeline:
    root = ctx.find_root()
    pipeline = root.obj.get("pipeline")
    if pipeline is None:
        pipeline = Pipeline.from_options(root.obj["options"], scheduler_backend=scheduler_backend)
        root.obj["pipeline"] = pipeline
        root.call_on_close(pipeline.close)
    return pipeline
