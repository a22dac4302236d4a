import uvicorn


if __name__ == "__main__":
    uvicorn.run("intent_service.main:app", host="localhost", port=4242, reload=False)
