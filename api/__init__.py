"""
HTTP 層

FastAPI routers 只負責解析請求、呼叫 ClubManager / RoundManager，
再把 ConsensusException 的 kind 轉成對應的 status code
"""
