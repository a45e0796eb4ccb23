import logging
from typing import Optional

from vsphere_iso.config.models import BuildConfig
from vsphere_iso.core.build.builder import Builder
from vsphere_iso.core.build.models import Build, BuildStatus
from vsphere_iso.core.pipeline.cancellation import CancellationToken
from vsphere_iso.core.pipeline.errors import (
    BuildCancelledError,
    BuildFailedError,
    BuildHaltedError,
)
from vsphere_iso.core.pipeline.services import Services

logger = logging.getLogger(__name__)


class BuildRunner:
    """
    Runs one Build and maps the pipeline result onto its status.
    """

    def __init__(self, services: Services, cancel: Optional[CancellationToken] = None):
        self.services = services
        # Exists before the Builder so an early cancel is not lost
        self.token = cancel or CancellationToken()
        self.builder: Optional[Builder] = None

    def run(self, build: Build, config: BuildConfig) -> Build:
        # --- build start ---
        build.vm_name = config.create.vm_name
        build.set_status(BuildStatus.RUNNING)
        logger.info("Build %s started (%s)", build.id, build.vm_name)

        self.builder = Builder(config, self.services, cancel=self.token)

        try:
            # --- PIPELINE ---
            build.artifact = self.builder.run()

        except BuildCancelledError as e:
            build.set_status(BuildStatus.CANCELLED, str(e))
        except BuildHaltedError as e:
            build.set_status(BuildStatus.HALTED, str(e))
        except BuildFailedError as e:
            build.set_status(BuildStatus.FAILED, str(e))
        except Exception as e:
            build.set_status(BuildStatus.FAILED, str(e))
            logger.exception("Build %s crashed", build.id)
            raise

        else:
            # --- build success ---
            build.set_status(BuildStatus.COMPLETED)

        logger.info("Build %s finished: %s", build.id, build.status.value)
        return build

    def cancel(self) -> None:
        self.token.cancel()
