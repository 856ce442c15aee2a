from pcrdesign.util.executable_runner import ExecutableRunner

__all__ = ["ExecutableRunner"]
