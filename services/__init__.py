"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- BallotService：選票驗證
- TallyService：計票與參與率
- TieBreakService：贏家與平手處理
- TurnService：推薦人輪替
- CompletionService：完成度統計
- HistoryService：社團回合紀錄
"""
