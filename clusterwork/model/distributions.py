"""Linux distributions nodeup knows how to configure."""

from enum import Enum


class Distribution(str, Enum):
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    RHEL = "rhel"
    ROCKY = "rocky"
    AMAZON_LINUX = "amazonlinux2"
    FLATCAR = "flatcar"
    CONTAINER_OS = "containeros"

    @property
    def is_debian_family(self) -> bool:
        return self in (Distribution.DEBIAN, Distribution.UBUNTU)

    @property
    def is_rhel_family(self) -> bool:
        return self in (Distribution.RHEL, Distribution.ROCKY, Distribution.AMAZON_LINUX)

    @property
    def has_package_manager(self) -> bool:
        """Flatcar and ContainerOS are immutable images without one."""
        return self.is_debian_family or self.is_rhel_family
