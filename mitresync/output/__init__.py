"""Output renderers for resolved mitigations."""

from mitresync.output.renderers import render_csv, render_json, render_table

__all__ = ["render_csv", "render_json", "render_table"]
