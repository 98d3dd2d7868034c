from reelestate.render.compositor import BrandingAssets, Compositor, build_filter_graph
from reelestate.render.lower_third import LowerThirdText, render_lower_third, slide_in_x_expression
from reelestate.render.process import ProcessResult, run_process

__all__ = [
    "BrandingAssets",
    "Compositor",
    "LowerThirdText",
    "ProcessResult",
    "build_filter_graph",
    "render_lower_third",
    "run_process",
    "slide_in_x_expression",
]
