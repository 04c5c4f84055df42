"""HTTP layer: the FastAPI app, shared dependencies and one router per resource."""

__all__ = [
	"routes",
]
