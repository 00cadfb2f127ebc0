"""Process entry point: wires Docker, the inventory and the maintainer together."""

import logging
import os
import signal

from docker import from_env

from magicacl.config import Config
from magicacl.docker_ops import DockerContainerLister, DockerNamespaceExecutor
from magicacl.inventory import JsonInventoryProvider
from magicacl.maintainer import AclMaintainer
from magicacl.scheduler import AclScheduler


def build_scheduler(config: Config, docker_client) -> AclScheduler:
    """Assemble the maintainer and its periodic driver without starting anything."""
    maintainer = AclMaintainer(
        executor=DockerNamespaceExecutor(docker_client, timeout=config.command_timeout, dry_run=config.dry_run),
        provider=JsonInventoryProvider(config.inventory_path, config.family),
        lister=DockerContainerLister(docker_client),
        hostname=config.hostname,
        family=config.family,
    )
    return AclScheduler(maintainer, interval=config.interval)


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                        format="%(asctime)s - %(levelname)s - %(message)s")
    config = Config.from_env()
    logging.info(f"Starting Magic ACL for {config.hostname} ({config.family.name}, "
                 f"inventory {config.inventory_path}{', dry run' if config.dry_run else ''})")

    scheduler = build_scheduler(config, from_env())

    def shutdown(signum, frame):
        logging.info("Shutting down...")
        scheduler.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    scheduler.start()
    scheduler.wait()


if __name__ == "__main__":
    main()
