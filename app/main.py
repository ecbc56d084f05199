from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.endpoints.api import api_router

app = FastAPI(title="Work Order Pricing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # For development; restrict to the workshop front-end in production
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")

@app.get("/health")
def health():
    return {"status": "up"}
