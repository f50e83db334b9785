import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "loyalty_event.app:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
    )


if __name__ == "__main__":
    main()
