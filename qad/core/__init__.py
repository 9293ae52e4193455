"""
コアモジュール

- config: プロジェクト設定ストアとロールレジストリ
- env_detection: 記録スクリプトからの認証情報検出と環境変数化
- agent / browser_agent: AI エージェント呼び出し
- mutation: 外部ファイル編集のオーケストレーション
- files / detection / recorder: プロジェクトファイル操作と検出、ログイン記録
"""
