"""CI 連携（GitHub Actions ワークフロー）"""
