# src/graphform/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Graphform.

Este módulo define a hierarquia de exceções utilizadas durante o
carregamento, a resolução e a validação estrutural das configurações
do engine (não das declarações de stack).

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção aqui representa falha de provider ou de apply

Limites explícitos:
    - Não realiza fallback ou recovery
    - Não depende de engine, state ou CLI
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Graphform.

    Todas as exceções levantadas durante carregamento, merge e
    resolução de settings devem herdar desta classe.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    O arquivo de defaults é obrigatório; o arquivo local é opcional e
    sua ausência não gera erro.
    """


class UnsupportedConfigFormatError(ConfigError):
    """Formato de arquivo diferente de YAML (.yaml/.yml) ou JSON (.json)."""


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz do arquivo de configuração não é um dicionário."""


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo: `engine.parallelism` é inteiro nos defaults e dicionário
    no override local. Conflitos não são resolvidos automaticamente.
    """


class InvalidSettingError(ConfigError):
    """
    Exceção levantada quando um setting resolvido tem valor fora do domínio.

    Exemplos:
        - `engine.parallelism` menor que 1
        - `state.path` vazio
    """


class InvalidConfigDocumentError(ConfigError):
    """O arquivo existe, mas não é YAML/JSON sintaticamente válido."""
