#!/usr/bin/env python3
"""
再構成エラー定義

近傍不良（回復可能）と、テーブル参照の契約違反（致命的）を区別します。
"""


class ReconstructionError(Exception):
    """再構成処理の基底例外"""


class DegenerateNeighborhood(ReconstructionError):
    """近傍点が不足、または最小二乗系がランク落ちしている"""


class IllFormedNeighborhood(ReconstructionError):
    """近傍のバウンディングボックスが直線状に偏っている"""


class InvalidCaseCode(ReconstructionError):
    """ケースコードが [0, 15] の範囲外（符号分類の入力が不正）"""

    def __init__(self, code):
        super().__init__(f"Invalid tetrahedron case code: {code!r} (expected 0-15)")
        self.code = code


class InvalidEdgeId(ReconstructionError, IndexError):
    """エッジ・四面体インデックスがテーブル範囲外"""
