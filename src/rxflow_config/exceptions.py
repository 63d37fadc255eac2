"""設定読み込みの例外型定義"""

from __future__ import annotations


class ConfigError(Exception):
    """rxflow の設定ファイル読み込み・検証で発生するエラー。

    code には ConfigErrorCodes の値が入る。ワーカーの起動処理はこの例外を
    終了コード 2 に対応付ける。
    """

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigErrorCodes:
    """設定エラーの分類。"""

    # ファイルが存在しない・読めない
    READ_FILE: str = "READ_FILE_ERROR"
    # YAML として解釈できない、またはトップレベルがマッピングでない
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    # スキーマ検証に失敗した
    VALIDATION: str = "VALIDATION_ERROR"
