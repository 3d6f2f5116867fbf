from fastapi import FastAPI

from rexai.api import insights

app = FastAPI(title="RexAI", version="0.1.0")

# Include routers
app.include_router(insights.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
