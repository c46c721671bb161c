"""
Simple script to run the ConsultDesk API server.
"""
import uvicorn

if __name__ == "__main__":
    print("Starting ConsultDesk...")
    print("Access at: http://127.0.0.1:8000 (API docs at /docs)")
    print("Press Ctrl+C to stop")
    print("-" * 40)

    uvicorn.run(
        "consultdesk.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
