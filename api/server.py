import logging
from datetime import datetime

from fastapi import FastAPI

from api.config import settings
from api.ingestion_router import router as ingestion_router
from api.manual_router import router as manual_router
from api.status_router import router as status_router
from api.verify_router import router as verify_router
from api.webhook_router import router as webhook_router

logging.basicConfig(
    level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Roadmap Status Resolution API", version="0.1.0")


@app.get("/health")
async def health_check():
    return {"status": "ok", "timestamp": datetime.now().isoformat()}


app.include_router(status_router)
app.include_router(manual_router)
app.include_router(ingestion_router)
app.include_router(verify_router)
app.include_router(webhook_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
