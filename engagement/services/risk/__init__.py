from engagement.services.risk.risk_monitor import RiskMonitor

__all__ = ["RiskMonitor"]
