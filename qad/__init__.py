"""
qa-director — Playwright E2E テストの雛形生成と AI テスト生成を行う CLI

主なサブパッケージ:
  - core: 設定ドキュメント、環境変数検出、レコーダー、AI エージェント呼び出し
  - ci: GitHub Actions ワークフローの更新
  - commands: init / login / generate / eject コマンド本体
"""

__version__ = "0.1.0"
