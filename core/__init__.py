"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理回合的狀態轉換
- Manager：管理 Club 和 Round 的生命週期
- Events：domain event 與 EventSink
- Club Config：社團設定的驗證
- Locks：並發控制工具
"""
