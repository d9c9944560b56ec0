"""
TransportDatabase / StopRegistry / TransferPlanner 싱글턴 관리.
앱 시작 시 한 번 로드하고, 모든 요청에서 재사용한다.
"""
import sys
import threading
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.config import OptimizationParams, database_path, load_params_from_env
from src.database import TransportDatabase
from src.planner import TransferPlanner
from src.stop_matcher import StopMatcher
from src.stop_registry import StopRegistry


class ServiceRegistry:
    def __init__(self):
        self.db: TransportDatabase | None = None
        self.stop_registry: StopRegistry | None = None
        self.planner: TransferPlanner | None = None
        self.params_lock = threading.RLock()  # Protects params swaps (optimization-params)

    def load(self, db_path=None, params: OptimizationParams | None = None):
        self.db = TransportDatabase(db_path or database_path())
        self.db.init_schema()
        self.stop_registry = StopRegistry(self.db)
        self.set_params(params or load_params_from_env())

    def set_params(self, params: OptimizationParams):
        """Swap in new params; runs already in progress keep their planner."""
        with self.params_lock:
            self.planner = TransferPlanner(
                self.get_database(),
                stop_registry=self.get_stop_registry(),
                matcher=StopMatcher.from_params(params),
                params=params,
            )

    def get_database(self) -> TransportDatabase:
        if self.db is None:
            raise RuntimeError("Database not loaded")
        return self.db

    def get_stop_registry(self) -> StopRegistry:
        if self.stop_registry is None:
            raise RuntimeError("Stop registry not loaded")
        return self.stop_registry

    def get_planner(self) -> TransferPlanner:
        if self.planner is None:
            raise RuntimeError("Planner not loaded")
        return self.planner


registry = ServiceRegistry()
