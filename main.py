import logging

from jirani.whatsapp.webhook import app

__all__ = ["app"]

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )
    uvicorn.run(
        "jirani.whatsapp.webhook:app", host="0.0.0.0", port=8000, reload=True
    )
