import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from rendicion.config import settings

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(
    title="Rendicion de Gastos API",
    description="Receipt-to-expense classification for trip expense reports",
    version="0.1.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {
        "message": "Rendicion de Gastos API",
        "version": "0.1.0",
        "status": "running"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

# Import routers
from rendicion.routers import ocr, conceptos, gastos_viaje, steps

# Include routers
app.include_router(ocr.router)
app.include_router(conceptos.router)
app.include_router(gastos_viaje.router)
app.include_router(steps.router)
