from docker_exporter.exporter import main

main()
