from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import router
from app.core.config import settings
from app.core.log_config import configure_logging

configure_logging(settings.log_level)

app = FastAPI(
    title="Product Vision API",
    version="1.0.0",
    description=(
        "Ask a vision model about product photos, uploaded or by URL, and turn its answers into "
        "titles, descriptions, tags, SEO copy and alt text. Results can be exported to Shopify "
        "as draft products."
    ),
)

# The merchant UI is served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
