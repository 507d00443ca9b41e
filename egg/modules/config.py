import configparser
import os

DEFAULT_LOCATIONS = [
    "/etc/egg/egg.conf",
    os.path.expanduser("~/.config/egg/egg.conf"),
    "egg.conf",
]

DEFAULT_BUILTIN_NAMESPACES = (
    "Prelude, Builtin, PrimIO, Data, Control, Decidable, Debug, "
    "Language, System, Text, Libraries"
)


class EggConfig:
    def __init__(self, locations=None):
        self.locations = locations or DEFAULT_LOCATIONS
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def reload(self):
        """(Re)carrega a configuração do primeiro arquivo disponível.

        Sem arquivo, todas as opções usam seus valores padrão.
        """
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        for path in self.locations:
            if os.path.isfile(path):
                self.config.read(path)
                self.loaded_from = path
                return

    def get(self, section, option, fallback=None):
        try:
            return self.config.get(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getboolean(self, section, option, fallback=False):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getint(self, section, option, fallback=0):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getlist(self, section, option, fallback=None, delimiter=","):
        raw = self.get(section, option, fallback="")
        if raw:
            return [item.strip() for item in raw.split(delimiter) if item.strip()]
        return fallback or []

    # atalhos usados pelo resto do pacote
    def build_dir(self):
        return self.get("paths", "build_dir", fallback="build")

    def deps_dir(self):
        return self.get("paths", "deps_dir", fallback=os.path.join(self.build_dir(), "deps"))

    def manifest_file(self):
        return self.get("paths", "manifest_file", fallback="egg.yaml")

    def workers(self):
        return self.getint("build", "workers", fallback=os.cpu_count() or 1)

    def builtin_namespaces(self):
        return self.getlist("modules", "builtin_namespaces",
                            fallback=[n.strip() for n in DEFAULT_BUILTIN_NAMESPACES.split(",")])

    def __getitem__(self, section):
        if section in self.config:
            return dict(self.config[section])
        raise KeyError(f"Seção '{section}' não encontrada.")

    def __contains__(self, section):
        return section in self.config


# Instância global padrão para uso em outros módulos
config = EggConfig()
