from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from staking.api import create_app
from staking.clock import SystemClock
from staking.config import StakingSettings, configure_logging

configure_logging()

settings = StakingSettings.from_env()
ledger = settings.build_ledger(clock=SystemClock())

app = create_app(ledger)
app.root_path = "/api"

handler = Mangum(app)
