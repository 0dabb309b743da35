#!/usr/bin/env python3
"""
pre-entrance research coach

A FastAPI application that helps first-year students plan a small research
project: research questions, a research plan with 10 article titles, generated
articles to read and annotate, and a slide plan with narration.

To start the server:
    python main.py
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

# add the project root to python path so we can import the backend package
sys.path.insert(0, str(Path(__file__).parent))

# start the fastapi server when this file is run
if __name__ == "__main__":
    import uvicorn
    # credentials for the ai and speech providers may live in .env
    load_dotenv()
    # run the api app on port 8000 with auto-reload for development
    uvicorn.run("src.research_coach.api:app", host="0.0.0.0", port=8000, reload=True)
