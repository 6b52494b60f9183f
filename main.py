"""
main.py — TestPrep CBT 진입점

로컬 서버(uvicorn)를 백그라운드 스레드로 띄우고 브라우저로 시험 화면을 연다.
  python main.py              : 빈 포트 자동 선택 + 브라우저 열기
  python main.py --no-browser : 서버만 실행 (DEFAULT_PORT)
"""

import os
import socket
import sys
import threading
import time
import logging
import traceback
import webbrowser

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, DATA_DIR, DEFAULT_HOST, DEFAULT_PORT, LOG_FILE

# ── 로깅 설정 ────────────────────────────────────────────────────────────────
try:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
except PermissionError:
    # 로그 파일 점유 시 콘솔 출력만 사용
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

# ── 서버 및 네트워크 유틸 ───────────────────────────────────────────────────

def _find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((DEFAULT_HOST, 0))
        return s.getsockname()[1]


def _wait_for_server(port: int, timeout: float = 15.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((DEFAULT_HOST, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(0.1)
    return False


def _run_server(port: int) -> None:
    try:
        import uvicorn
        from api.app import create_app
        logger.info(f"Uvicorn 서버 시작 - {DEFAULT_HOST}:{port}")
        uvicorn.run(create_app(), host=DEFAULT_HOST, port=port, log_level="warning")
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")

# ── 메인 실행 ────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("=== TestPrep CBT Application Started ===")
    os.chdir(BASE_DIR)
    os.makedirs(DATA_DIR, exist_ok=True)

    if "--no-browser" in sys.argv:
        _run_server(DEFAULT_PORT)
        sys.exit(0)

    port = _find_free_port()
    threading.Thread(target=_run_server, args=(port,), daemon=True).start()

    if not _wait_for_server(port):
        logger.error("서버 시작 제한 시간을 초과했습니다.")
        sys.exit(1)

    logger.info("서버 준비 완료. 브라우저를 엽니다.")
    webbrowser.open(f"http://{DEFAULT_HOST}:{port}")

    # 메인 스레드 유지
    try:
        while True:
            time.sleep(10)
    except KeyboardInterrupt:
        logger.info("사용자에 의해 종료되었습니다.")
