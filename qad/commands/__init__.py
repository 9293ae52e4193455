"""CLI サブコマンドの実装（init / login / generate / eject）"""
