"""
Routewise 관리자 API 진입점
실행: python run.py
접속: http://localhost:8000/docs
"""
import os
import sys
from pathlib import Path
import uvicorn


def check_dependencies():
    """필수 패키지 확인"""
    required = ["fastapi", "uvicorn", "pandas", "numpy"]
    missing = []
    for pkg in required:
        try:
            __import__(pkg)
        except ImportError:
            missing.append(pkg)

    if missing:
        print(f"[ERROR] 필수 패키지가 설치되지 않았습니다: {', '.join(missing)}")
        print("다음 명령어로 설치하세요:")
        print("  pip install -e .")
        sys.exit(1)


def check_data():
    """데이터베이스 파일 확인"""
    db_path = Path(os.getenv("ROUTEWISE_DB_PATH", "data/routewise.db"))
    if not db_path.exists():
        print(f"[WARN]  데이터베이스가 없습니다: {db_path}")
        print("빈 스키마로 시작합니다. 노선/예약 데이터를 먼저 불러오세요:")
        print("  python scripts/load_catalog.py --csv-dir data/catalog")
        print()


def main():
    """메인 실행 함수"""
    print("=" * 60)
    print("Routewise - 통학버스 노선 이관 최적화")
    print("=" * 60)
    print()

    # 환경 변수 로드 (.env)
    from dotenv import load_dotenv
    load_dotenv()

    check_dependencies()
    check_data()

    # 서버 설정
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "True").lower() == "true"

    url = f"http://{host}:{port}"

    print(f"[*] 서버 주소: {url}")
    print(f"[*] 프로젝트 디렉토리: {Path.cwd()}")
    print(f"[*] 자동 재시작: {'활성화' if reload else '비활성화'}")
    print()
    print("서버를 중지하려면 Ctrl+C를 누르세요.")
    print("=" * 60)
    print()

    try:
        uvicorn.run(
            "api.app:app",
            host=host,
            port=port,
            reload=reload,
            reload_dirs=["api", "src"],
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
        )
    except KeyboardInterrupt:
        print("\n\n[*] 서버를 종료합니다.")
    except Exception as e:
        print(f"\n[ERROR] 서버 실행 중 오류 발생: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
