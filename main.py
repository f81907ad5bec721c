"""Launch the survey analysis FastAPI server."""

import logging

import uvicorn

from survey_analysis.config import LOG_LEVEL


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("survey_analysis.server:app", host="0.0.0.0", port=8000, reload=True)


if __name__ == "__main__":
    main()
