import os

from testprep_cbt.models.session_state import EmptyAnswerPolicy

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
EXAM_DIR = os.getenv("EXAM_DIR", os.path.join(BASE_DIR, "exams"))
DATA_DIR = os.getenv("DATA_DIR", os.path.join(BASE_DIR, "data"))
ATTEMPTS_FILE = os.path.join(DATA_DIR, "attempts.json")

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# 응시 설정
CHECKPOINT_INTERVAL_SECONDS = int(os.getenv("CHECKPOINT_INTERVAL_SECONDS", "30"))  # 진행 상황 자동 저장 주기
# "unattempted" | "answered", 잘못된 값이면 import 시점에 ValueError
EMPTY_ANSWER_POLICY = EmptyAnswerPolicy(os.getenv("EMPTY_ANSWER_POLICY", "unattempted").strip().lower())
