# backend/main.py
import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# --- Import every feature router statically ---
from features.arabic_roots_game.config import LOG_FORMAT
from features.arabic_roots_game.router import router as arabic_roots_game_router
# ==============================================================================
# [Example] Adding a new feature module
# ------------------------------------------------------------------------------
# After creating a new feature under backend/features/ (e.g. my_new_feature),
# import its router here.
#
# from features.my_new_feature.router import router as my_new_feature_router
# ==============================================================================

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)

app = FastAPI(
    title="Arabic Roots Game Backend API (Modular)",
    description="Round generation, scoring and progress for the Arabic roots and Qutrab triangle games.",
    version="1.0.0",
)

# --- CORS middleware ---
origins = [
    "http://localhost:8787",
    "http://localhost:8081",
]
if os.getenv("ALLOWED_ORIGINS"):
    additional_origins = [origin.strip() for origin in os.getenv("ALLOWED_ORIGINS").split(",")]
    origins.extend(additional_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# --- Register every imported router ---
# The "/api" prefix is applied here, consistently for all routers.
app.include_router(arabic_roots_game_router, prefix="/api")
logging.info("Successfully loaded feature: arabic_roots_game")

# ==============================================================================
# [Example] Registering a new feature router
# ------------------------------------------------------------------------------
# app.include_router(my_new_feature_router, prefix="/api")
# ==============================================================================


# --- Platform endpoints ---
@app.get("/", include_in_schema=False)
def read_root():
    return {"message": "Welcome to the Arabic Roots Game Backend API. See /docs for documentation."}


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}
