from typing import cast


class AppxMungeRuntimeError(RuntimeError):
    @property
    def message(self) -> str:
        return cast("str", self.args[0])


class AppxMungeSubstitutionError(AppxMungeRuntimeError):
    pass


class AppxMungeManifestError(AppxMungeRuntimeError):
    pass


class AppxMungeLedgerError(AppxMungeRuntimeError):
    pass


class PluginChangesParseError(AppxMungeRuntimeError):
    pass
