# Local / container entry point. On Lambda the handler is kb_rag.handler.lambda_handler.

import os
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kb_rag.router import router as kb_router

app = FastAPI(
    title="Knowledge Base Q&A",
    description="Answers questions from a Bedrock Knowledge Base with citations.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"status": "ok", "message": "Knowledge Base Q&A backend is running!"}

@app.get("/healthz")
def healthz():
    return {"ok": True}

app.include_router(kb_router)

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
