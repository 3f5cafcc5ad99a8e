"""
Run context and diagnostic artifact sink.

One RunContext is created per process and passed to every component that
captures diagnostics. Only the session orchestrator changes the current
account index, between accounts. Persisting artifacts is best effort: a
failure is logged and never interrupts the run.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from playwright.async_api import Error as PlaywrightError

from merch_bot.core.models import AccountResult, AccountStatus
from merch_bot.utils.sanitize import sanitize_filename

logger = logging.getLogger(__name__)


def _timestamp_slug(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z').replace(':', '-').replace('.', '-')


class RunContext:
    def __init__(self, logs_dir: Path, screens_dir: Path, run_id: Optional[str] = None):
        self.run_id = run_id or _timestamp_slug()
        self.logs_dir = Path(logs_dir)
        self.screens_dir = Path(screens_dir)
        self.run_dir = self.logs_dir / f'run_{self.run_id}'
        self.account_index = 0
        self.screenshots = []

    def prepare(self) -> None:
        """Create output directories"""
        for directory in (self.logs_dir, self.screens_dir, self.run_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def set_account(self, index: int) -> None:
        self.account_index = index

    @property
    def failures_path(self) -> Path:
        return self.run_dir / 'failures.jsonl'

    async def screenshot(self, page, label: str) -> Optional[Path]:
        """
        Capture a full-page screenshot tagged with the current account.

        Returns:
            Path of the written file, or None when the capture failed
        """
        if page is None:
            return None
        name = f"{_timestamp_slug()}_acc{self.account_index}_{sanitize_filename(label)}.png"
        path = self.screens_dir / name
        try:
            self.screens_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as e:
            logger.warning(f"⚠️ Screenshot '{label}' failed: {e}")
            return None
        self.screenshots.append(path)
        logger.debug(f"📸 Screenshot saved: {path.name}")
        return path

    def record_failure(self, step: str, error: Any, url: str = '') -> None:
        record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'accountIndex': self.account_index,
            'step': step,
            'url': url,
            'error': str(error),
        }
        try:
            self.run_dir.mkdir(parents=True, exist_ok=True)
            with open(self.failures_path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record) + '\n')
        except OSError as e:
            logger.warning(f"⚠️ Could not record failure for '{step}': {e}")

    def save_account_results(self, results: Iterable[AccountResult]) -> Optional[Path]:
        """Write the account summary to logs/ and to the run directory"""
        results = list(results)
        summary: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'runId': self.run_id,
            'totalAccounts': len(results),
            'successful': sum(1 for r in results if r.status is AccountStatus.SUCCESS),
            'failed': sum(1 for r in results if r.status is AccountStatus.ERROR),
            'outOfStock': sum(1 for r in results if r.status is AccountStatus.OUT_OF_STOCK),
            'limitReached': sum(1 for r in results if r.status is AccountStatus.LIMIT_REACHED),
            'results': [r.to_record() for r in results],
        }
        payload = json.dumps(summary, indent=2)

        summary_path = self.logs_dir / f'account-results-{_timestamp_slug()}.json'
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            summary_path.write_text(payload, encoding='utf-8')
            self.run_dir.mkdir(parents=True, exist_ok=True)
            (self.run_dir / 'account-results.json').write_text(payload, encoding='utf-8')
        except OSError as e:
            logger.warning(f"⚠️ Could not save account results: {e}")
            return None

        logger.info(f"💾 Account results saved: {summary_path}")
        return summary_path
