"""PAL Tracker Python library package.

Keep package import lightweight; import submodules explicitly where needed.
"""

__version__ = "1.0.0"
__all__ = [
	"assembler",
	"cache",
	"client",
	"exceptions",
	"hours",
	"migrations",
	"models",
	"reconciler",
	"scheduler",
	"schema",
	"status",
	"store",
	"utils",
]
