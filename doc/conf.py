from importlib import metadata
from urllib.request import urlopen


_conf_url = "https://tiker.net/sphinxconfig-v0.py"
with urlopen(_conf_url) as _inf:
    exec(compile(_inf.read(), _conf_url, "exec"), globals())

copyright = "2024, gpuwss contributors"
release = metadata.version("gpuwss")
version = ".".join(release.split(".")[:2])

exclude_patterns = ["_build"]

intersphinx_mapping = {
    "numpy": ("https://numpy.org/doc/stable/", None),
    "pymbolic": ("https://documen.tician.de/pymbolic", None),
    "python": ("https://docs.python.org/3", None),
    "pytools": ("https://documen.tician.de/pytools", None),
}

nitpicky = True

sphinxconfig_missing_reference_aliases = {
    # pymbolic
    "Expression": "obj:pymbolic.typing.Expression",
    "ExpressionNode": "class:pymbolic.primitives.ExpressionNode",
    "p.Variable": "obj:pymbolic.primitives.Variable",
    # gpuwss
    "Handle": "obj:gpuwss.typing.Handle",
    "Value": "obj:gpuwss.typing.Value",
}


def setup(app):
    app.connect("missing-reference", process_autodoc_missing_reference)  # noqa: F821
