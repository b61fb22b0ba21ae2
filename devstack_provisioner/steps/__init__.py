from .step_10_homebrew import HomebrewStep
from .step_15_java import JavaStep
from .step_20_core_tools import CoreToolsStep
from .step_25_ruby import RubyStep
from .step_28_git import GitStep
from .step_30_android_sdk import AndroidSdkStep
from .step_35_xcode import XcodeStep
from .step_40_appium import AppiumStep
from .step_45_internal_tools import InternalToolsStep
from .step_50_ssh import SshStep
from .step_55_remote_access import RemoteAccessStep
from .step_60_power import PowerStep
from .step_70_network import NetworkOrderStep
from .step_90_shell_profile import ShellProfileStep

__all__ = [
    "HomebrewStep",
    "JavaStep",
    "CoreToolsStep",
    "RubyStep",
    "GitStep",
    "AndroidSdkStep",
    "XcodeStep",
    "AppiumStep",
    "InternalToolsStep",
    "SshStep",
    "RemoteAccessStep",
    "PowerStep",
    "NetworkOrderStep",
    "ShellProfileStep",
]
