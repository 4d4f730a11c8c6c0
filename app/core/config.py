import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./interview_core.db")

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ✅ CORS
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# ✅ OpenAI / analysis backend
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
ANALYSIS_BACKEND = os.getenv("ANALYSIS_BACKEND", "auto")  # auto / openai / heuristic
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "30"))

# ✅ Feedback pipeline
FEEDBACK_CLAIM_TTL_SECONDS = int(os.getenv("FEEDBACK_CLAIM_TTL_SECONDS", "300"))
MIN_CANDIDATE_TURNS = int(os.getenv("MIN_CANDIDATE_TURNS", "1"))
MIN_CANDIDATE_WORDS = int(os.getenv("MIN_CANDIDATE_WORDS", "1"))

# ✅ Transcript log
TRANSCRIPT_APPEND_MAX_RETRIES = int(os.getenv("TRANSCRIPT_APPEND_MAX_RETRIES", "5"))
