from __future__ import annotations

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "checkout_core.asgi:create_asgi_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
